# Proactive scheduling service
