"""
Feature modules. Each one owns its models, service functions and a JSON blueprint.
"""
