"""
mongo-cluster integration tests

These tests start real mongod processes and are skipped when mongod is not
on PATH. Every node started here is killed at the end of its test.

Port Range: 27150-27160 (to avoid conflicts with local MongoDB)
"""
