# Seat availability synchronization for the event ticketing console
