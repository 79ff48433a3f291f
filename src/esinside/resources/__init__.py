"""Packaged resources: default JVM options and the compressed bundles."""
