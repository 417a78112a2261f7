"""Concrete collaborators: storage, push backends, queue and real-time transport."""
