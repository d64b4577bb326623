"""
Generation collaborator package for commit-composer.

This package contains the abstract client interface, the HTTP client
for an opencode server, the reply models used to validate structured
answers, and the built-in prompt texts.
"""
