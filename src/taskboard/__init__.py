"""Taskboard: a JSON:API service for users, projects, tasks, categories and groups."""
