"""Test suite for the tfcases package.

This package contains unit and integration tests validating interface
extraction, scenario enumeration, assertion synthesis, test file
rendering, Terraform evaluation and pytest integration.
"""
