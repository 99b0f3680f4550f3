"""Application settings"""
