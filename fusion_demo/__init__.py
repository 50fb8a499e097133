"""Adaptive odometry fusion demo."""
