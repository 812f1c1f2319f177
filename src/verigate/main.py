"""Main application entry point for the FastAPI application.

Creates the FastAPI instance using the application factory pattern.
"""

from verigate.core.application import create_application

# Create the FastAPI application
app = create_application()
