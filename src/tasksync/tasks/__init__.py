"""
Task subsystem.

Components:
- task_models.py: data structures (Task, UserProfile, SortOption) + document codec
- task_client.py: live task client (snapshot feed, optimistic mutations, error slot)
- optimistic.py: two-phase mutation record (applied -> confirmed / rolled back)
- views.py: pure list projections (partition, sort, display dates, overdue)
- binding.py: one task client per signed-in identity
"""
