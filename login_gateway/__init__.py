"""
Login Gateway

Federates browser login through Apple, Naver and Google, keeps one user row
per identity, and guards profile endpoints with a signed 'token' cookie.

Packages:
- auth: provider adapters, login/callback routes, session tokens, session gate
- profile: current-user and profile-image endpoints
- store: async user table access
"""

__version__ = "1.0.0"
