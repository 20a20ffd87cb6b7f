"""Agent session execution."""

from .trigger import CommandExecutionTrigger, ExecutionTrigger, LoggingExecutionTrigger

__all__ = ["CommandExecutionTrigger", "ExecutionTrigger", "LoggingExecutionTrigger"]
