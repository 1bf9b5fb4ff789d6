from storage.store import DocumentStore, Versioned
