"""auth/ -- Authentication and session-token lifecycle for the job portal.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
The routing layer (outside this repository) imports from auth/, never the
other way around. SessionService in auth/service.py is the only entry point
that mutates users or refresh tokens.
"""
