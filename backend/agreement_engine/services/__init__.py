"""Agreement Engine - Services"""
