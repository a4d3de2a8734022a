"""
Test suite for the Front Desk Registration Service.

Contains unit tests for the form, directory and print pipeline, and HTTP-level
tests against fake backend clients.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
