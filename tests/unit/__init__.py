"""
mongo-cluster unit tests

These tests never start MongoDB. Connections go through a scripted fake
admin and node processes are replaced by handles that record launches
instead of spawning binaries.
"""
