"""Session synchronization client.

Store, dispatcher, partial output accumulator, permission queue, and the
event processor that ties them to a channel. Import from the submodules
directly; this package does not re-export them.
"""
