# Live channel and live resources shared by the dashboard and billing features
