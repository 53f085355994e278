"""
MediaQueue Services

Services behind the batch generation queue:
- jobs: job model, store, rate limiter and scheduler
- generation: provider dispatchers, polling and result downloads
- api: FastAPI server over the scheduler
"""
