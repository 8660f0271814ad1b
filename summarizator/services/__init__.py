"""
Services module - pipeline components behind the API layer.
"""
