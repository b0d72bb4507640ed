"""Application services orchestrating the pH controller and crop catalog."""
