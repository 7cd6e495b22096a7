"""Pipeline components.

This package contains the load, edit, commit and export stages of the
round trip, plus the file codecs and the local storage they read and write
through.
"""
