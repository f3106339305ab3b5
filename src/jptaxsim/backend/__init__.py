"""Backend services for the jptaxsim estimator."""
