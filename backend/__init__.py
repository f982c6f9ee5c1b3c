# Backend module
