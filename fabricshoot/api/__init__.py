# API routes package
