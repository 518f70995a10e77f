"""Hook handlers and the runtime that dispatches events to them.

Every hook process parses one event from stdin, runs the handlers
registered for it under the fail-open supervisor and writes a single JSON
response.  Handlers never raise to the host: a crash or timeout is an
``allow``.
"""
