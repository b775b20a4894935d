"""Quote calculation test data contract"""
