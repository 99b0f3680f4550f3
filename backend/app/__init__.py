"""Agent Orchestrator application package"""
