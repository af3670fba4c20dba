"""Deployment orchestration for static sites backed by CloudFormation stacks."""

__version__ = "0.1.0"
