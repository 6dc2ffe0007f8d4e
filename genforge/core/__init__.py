"""Pipeline core: generation, packaging, storage, jobs and the gate."""
