"""auth/ -- Session and key lifecycle package for sessionkeep.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
No storage backend and no web-framework binding lives here; both plug in
through auth.adapter and auth.request.RequestContext respectively.
"""
