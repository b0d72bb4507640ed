"""
Service Organization
====================
Services are organized by their lifecycle and instantiation pattern:

**application/**
  Singleton services managed by ServiceContainer. One instance per application.
  Examples: MonitoringService, CropService

**utilities/**
  Stateless utility services that can be instantiated multiple times.
  Examples: WeatherService
"""
