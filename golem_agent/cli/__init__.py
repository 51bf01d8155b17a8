"""CLI module for golem-agent."""
