# API route modules
