"""
Static asset cache proxy.

Responsibilities:
- Pre-populate a named cache bucket from a fixed manifest, all or nothing.
- Intercept asset requests and answer them from the bucket or the live origin.
- Keep the install -> activate -> intercept order explicit.
"""
