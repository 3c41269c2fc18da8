"""
Core Module

Configuration, logging setup and the operation context shared by every
layer.
"""
