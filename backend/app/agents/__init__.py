"""Built-in agents"""
