"""Agent roster: admin CRUD over the agents that lists are distributed to."""
