"""
Domain Module

Store-independent entities, value objects, contracts and errors.
"""
