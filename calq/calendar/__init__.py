"""Google Calendar access: OAuth, provider client, fetch, categorizer and views."""
