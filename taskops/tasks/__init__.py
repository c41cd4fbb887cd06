"""Task domain — constants, the task store, rules and built-in functions."""
