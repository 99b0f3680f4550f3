"""Agent Orchestrator CLI"""
