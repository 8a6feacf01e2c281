"""Agents that draft and repair Dockerfiles with an LLM."""

from autodeploy.agents.base import BaseAgent, GenerationError
from autodeploy.agents.dockerfile_fixer import DockerfileFixerAgent
from autodeploy.agents.dockerfile_writer import DockerfileWriterAgent

__all__ = ["BaseAgent", "DockerfileFixerAgent", "DockerfileWriterAgent", "GenerationError"]
