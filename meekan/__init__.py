"""
Meekan API client SDK.

Only the session authentication layer lives here:
- `meekan.auth` negotiates a Meekan session (social login, iCloud, raw cookies).
- `meekan.transport` is the thin HTTP envelope used for Meekan API calls.
"""
