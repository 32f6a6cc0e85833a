# Proactive scheduling package
