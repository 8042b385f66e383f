"""src/streamkeeper/utils/__init__.py"""
