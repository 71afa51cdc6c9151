"""
E2E scenarios run against a live OpenShift cluster.
"""
