"""Per-call relay between the telephony media stream and the realtime AI session.

The controller in ``telephony.session`` only talks to the transport contracts in
``telephony.transports``; the Twilio and OpenAI adapters live in ``integrations``.
"""
