"""Health Rocket — challenges, fuel points, health assessments and subscriptions."""
