"""Daemon-side runtime: scheduler, environment controller, and stores."""
