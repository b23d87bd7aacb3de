"""Call insights: account health profiles and period tickets from support calls."""
